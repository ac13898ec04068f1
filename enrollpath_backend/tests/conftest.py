import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.models.base import Base
from app.services.catalog import Catalog
import app.models  # noqa: F401
from factories import make_course, make_section


@pytest.fixture
def catalog():
    return Catalog(
        [
            make_course("CS101", title="Intro to Programming"),
            make_course("CS201", "CS101", title="Data Structures"),
            make_course("MATH210", title="Discrete Math"),
            make_course("CS301", "CS201 and (MATH210 or MATH220)", title="Algorithms"),
            make_course("CS350", "either CS301 or CS320", credits="4", title="Operating Systems"),
        ],
        [
            make_section("10001", "CS101", "Mon,Wed", (9, 0), (10, 0)),
            make_section("10002", "CS101", "Tue,Thu", (13, 0), (14, 15)),
            make_section("20001", "CS201", "Mon,Wed", (10, 0), (11, 0)),
            make_section("30001", "CS301", "Fri", (9, 0), (12, 0)),
        ],
    )


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()
