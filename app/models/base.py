from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    모든 SQLAlchemy 모델이 상속할 기본 Base 클래스

    예시:

    class Profile(Base):
        __tablename__ = "profiles"
        id = Column(Integer, primary_key=True, index=True)
        ...
    """

    pass
