from taskhub import models
from taskhub.core.config import settings
from taskhub.core.logger import logger
from taskhub.database import SessionLocal, engine
from taskhub.services.user_service import UserService

def init_db():
    models.Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        # bootstrap administrator; further admins are promoted from the database
        admin_user = db.query(models.User).filter(models.User.email == settings.ADMIN_EMAIL).first()
        if not admin_user:
            logger.info(f"Creating administrator {settings.ADMIN_EMAIL} ...")
            UserService.register(
                db, email=settings.ADMIN_EMAIL, password=settings.ADMIN_PASSWORD,
                username="admin", is_admin=True,
            )
        elif not admin_user.is_admin:
            admin_user.is_admin = True
            db.commit()
        logger.info("Initialization completed")
    except Exception:
        logger.exception("Init failed")
        raise
    finally:
        db.close()

if __name__ == "__main__":
    init_db()
