"""
Shared fixtures for localdb tests.
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from localdb import LocalRepository
from support import CountingStorage, Person


@pytest.fixture
def storage():
    return CountingStorage()


@pytest.fixture
def repo(storage):
    repository = LocalRepository("mymodels", storage)
    Person.db = repository
    yield repository
    Person.db = None


@pytest.fixture
async def people(repo):
    """Three stored people with ids 1..3"""
    created = []
    for name, age in (("b", 30), ("a", 30), ("c", 20)):
        person = Person(name=name, age=age, email=f"{name}@example.com")
        await person.save()
        created.append(person)
    return created
