from sqlalchemy.orm import Session
import logging
from app.models.user import User, UserRole
from app.core.config import settings

logger = logging.getLogger(__name__)


def init_db(db: Session) -> None:
    """Initialize database with default data"""

    # Create admin user
    email = (settings.DEFAULT_ADMIN_EMAIL or "").strip()
    if not email:
        logger.warning("Missing DEFAULT_ADMIN_EMAIL; no admin user seeded env=%s", settings.ENVIRONMENT)
        return

    admin = db.query(User).filter(User.email == email).first()
    if not admin:
        admin = User(
            email=email,
            full_name="MarketNest Admin",
            role=UserRole.ADMIN,
            is_active=True,
        )
        db.add(admin)
        db.commit()
        logger.info("admin_user_created email=%s", email)

    logger.info("database_initialized")


if __name__ == "__main__":
    from app.db.base import Base
    from app.db.session import SessionLocal, engine
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    init_db(db)
    db.close()
