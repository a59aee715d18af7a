"""
Pytest fixtures for Stockflow tests.
"""

import pytest
from django.contrib.auth import get_user_model

from stockflow.adapters.directory import reset_directory
from stockflow.models import Product, Warehouse
from stockflow.service import Stockflow
from stockflow.services.locks import PairLocks


User = get_user_model()


@pytest.fixture(autouse=True)
def _fresh_directory():
    """Directory is cached per process; tests may reconfigure it."""
    reset_directory()
    yield
    reset_directory()


@pytest.fixture
def user(db):
    """Create a test user."""
    return User.objects.create_user(
        username='clerk',
        password='testpass123'
    )


@pytest.fixture
def main(db):
    """Warehouse 10, where stock starts."""
    return Warehouse.objects.create(pk=10, code='main', name='Main Warehouse')


@pytest.fixture
def annex(db):
    """Warehouse 20, the usual transfer destination."""
    return Warehouse.objects.create(pk=20, code='annex', name='Annex')


@pytest.fixture
def outlet(db):
    """Warehouse 30."""
    return Warehouse.objects.create(pk=30, code='outlet', name='Outlet')


@pytest.fixture
def product(db):
    """Product 1."""
    return Product.objects.create(pk=1, sku='BOLT-M8', name='Bolt M8')


@pytest.fixture
def other_product(db):
    """Product 2."""
    return Product.objects.create(pk=2, sku='NUT-M8', name='Nut M8')


@pytest.fixture
def locks():
    """Locks private to one test, so a hung test cannot block the next."""
    return PairLocks()


@pytest.fixture
def stock(locks):
    """Stockflow facade with private locks."""
    return Stockflow(locks=locks)


@pytest.fixture
def stocked(stock, product, other_product, main):
    """50 of product and 20 of other_product in main."""
    stock.receive(50, product, main, reason='Opening stock')
    stock.receive(20, other_product, main, reason='Opening stock')
    return stock
