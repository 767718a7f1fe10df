from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from ..database import get_db
from .. import models
from ..core import deps
from ..schemas import TaskCreate, TaskOut, CompletionOut, ReviewRequest
from ..services.task_service import TaskService
from ..services.completion_service import CompletionService

router = APIRouter(prefix="/api", tags=["Tasks"])

# 1. task board: open tasks the caller can still work on
@router.get("/tasks", response_model=List[TaskOut])
def list_tasks(db: Session = Depends(get_db), user=Depends(deps.get_current_user)):
    return TaskService.list_available(db, user)

@router.post("/tasks", response_model=TaskOut, status_code=status.HTTP_201_CREATED,
             dependencies=[deps.rate_limit(times=10, seconds=60)])
def create_task(
    payload: TaskCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(deps.get_current_active_user),
):
    return TaskService.create_task(
        db, user,
        name=payload.name,
        description=payload.description,
        link=payload.link,
        total_slots=payload.total_slots,
        price=payload.price,
    )

# declared before /tasks/{task_id} so "completed" is not parsed as an id
@router.get("/tasks/completed", response_model=List[int])
def submitted_task_ids(db: Session = Depends(get_db), user=Depends(deps.get_current_user)):
    return TaskService.submitted_task_ids(db, user)

@router.get("/tasks/{task_id}", response_model=TaskOut)
def task_detail(task_id: int, db: Session = Depends(get_db), user=Depends(deps.get_current_user)):
    return TaskService.get_task(db, task_id)

# 2. proof submission
@router.get("/tasks/{task_id}/completion", response_model=Optional[CompletionOut])
def my_completion(task_id: int, db: Session = Depends(get_db), user=Depends(deps.get_current_user)):
    return CompletionService.get_for_user(db, task_id, user)

@router.post("/tasks/{task_id}/complete", response_model=CompletionOut, status_code=status.HTTP_201_CREATED,
             dependencies=[deps.rate_limit(times=1, seconds=3)])
def submit_proof(
    task_id: int,
    text_proof: Optional[str] = Form(None, alias="textProof"),
    image_proof: Optional[UploadFile] = File(None, alias="imageProof"),
    db: Session = Depends(get_db),
    user: models.User = Depends(deps.get_current_active_user),
):
    return CompletionService.submit_proof(db, task_id, user, text_proof=text_proof, image_proof=image_proof)

# 3. owner side: my tasks and their submissions
@router.get("/my-tasks", response_model=List[TaskOut])
def my_tasks(db: Session = Depends(get_db), user=Depends(deps.get_current_user)):
    return TaskService.list_owned(db, user)

@router.get("/my-tasks/{task_id}/completions", response_model=List[CompletionOut])
def task_completions(task_id: int, db: Session = Depends(get_db), user=Depends(deps.get_current_user)):
    return CompletionService.list_for_owner(db, task_id, user)

# uploads are never served statically; proof images go through this check
@router.get("/tasks/completions/{completion_id}/image")
def proof_image(completion_id: int, db: Session = Depends(get_db), user=Depends(deps.get_current_user)):
    return FileResponse(CompletionService.proof_image_path(db, completion_id, user))

@router.post("/tasks/completions/{completion_id}/review", response_model=CompletionOut)
def review_completion(
    completion_id: int,
    payload: ReviewRequest,
    db: Session = Depends(get_db),
    user: models.User = Depends(deps.get_current_active_user),
):
    return CompletionService.review(db, completion_id, user, payload.status)
