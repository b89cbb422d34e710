from datetime import date

import pytest
from sqlalchemy.exc import OperationalError

from vitasport_admin import crud, models, schemas, security
from vitasport_admin.balances import BalanceProjector
from vitasport_admin.database import get_engine, init_database
from vitasport_admin.errors import (
    AuthenticationError,
    DuplicateError,
    NotFoundError,
    ProductInUseError,
    StorageError,
)
from vitasport_admin.movements import MovementLog


def test_product_onboarding_books_initial_stock(store, make_product) -> None:
    product = make_product(initial_stock=24, expiry_date=date(2027, 3, 31), created_by=1)

    assert product.expiry_date == "2027-03-31"
    assert BalanceProjector(store).balance_of(product.id) == 24
    movements = MovementLog(store).list_by_product(product.id)
    assert len(movements) == 1
    assert movements[0].kind is models.MovementKind.INFLOW
    assert movements[0].note == "Initial stock"
    assert movements[0].created_by == 1


def test_product_without_initial_stock_has_no_history(store, make_product) -> None:
    product = make_product()

    assert MovementLog(store).list_by_product(product.id) == []


def test_duplicate_sku_is_rejected(store, make_product, count_rows) -> None:
    make_product(sku="WHEY-1KG", initial_stock=1)

    with pytest.raises(DuplicateError):
        make_product(sku="WHEY-1KG", initial_stock=5)

    assert count_rows(models.Product) == 1
    assert count_rows(models.StockMovement) == 1


def test_update_product_is_partial(make_product, db) -> None:
    product = make_product(name="BCAA", sale_price=20.0, cost_price=12.0)

    updated = crud.update_product(
        db, crud.get_product(db, product.id), schemas.ProductUpdate(sale_price=22.5, flavor="Lemon")
    )

    assert updated.sale_price == 22.5
    assert updated.flavor == "Lemon"
    assert updated.name == "BCAA"
    assert updated.cost_price == 12.0


def test_delete_product_without_history(store, make_product, count_rows) -> None:
    product = make_product()

    crud.delete_product(store, product.id)

    assert count_rows(models.Product) == 0


def test_delete_product_with_history_is_refused(store, make_product, count_rows) -> None:
    product = make_product(initial_stock=1)

    with pytest.raises(ProductInUseError):
        crud.delete_product(store, product.id)

    assert count_rows(models.Product) == 1


def test_delete_unknown_product(store) -> None:
    with pytest.raises(NotFoundError):
        crud.delete_product(store, 31337)


def test_default_admin_is_seeded_once(session_factory, db) -> None:
    init_database(get_engine())
    users = crud.list_users(db)

    assert [user.username for user in users] == [crud.DEFAULT_ADMIN_USERNAME]
    assert users[0].role == crud.DEFAULT_ADMIN_ROLE


def test_create_and_authenticate_user(db) -> None:
    user = crud.create_user(db, schemas.UserCreate(username="cajero", password="secreto", fullname="Ana"))

    assert user.role == "Vendedor"
    assert user.password_hash != "secreto"
    assert crud.authenticate_user(db, "cajero", "secreto").id == user.id
    with pytest.raises(AuthenticationError):
        crud.authenticate_user(db, "cajero", "wrong")
    with pytest.raises(AuthenticationError):
        crud.authenticate_user(db, "nobody", "secreto")


def test_duplicate_username(db) -> None:
    with pytest.raises(DuplicateError):
        crud.create_user(db, schemas.UserCreate(username="admin", password="another"))


def test_update_user_changes_password(db) -> None:
    user = crud.create_user(db, schemas.UserCreate(username="bodega", password="first"))

    crud.update_user(db, user, schemas.UserUpdate(password="second", role="Bodega"))

    assert crud.authenticate_user(db, "bodega", "second").role == "Bodega"


def test_stale_hash_is_upgraded_on_login(db) -> None:
    user = crud.create_user(db, schemas.UserCreate(username="legacy", password="pass1234"))
    user.password_hash = security.hash_password("pass1234", iterations=1000)
    db.commit()
    assert security.needs_rehash(user.password_hash)

    crud.authenticate_user(db, "legacy", "pass1234")

    assert not security.needs_rehash(crud.get_user(db, user.id).password_hash)


def test_delete_user(db) -> None:
    user = crud.create_user(db, schemas.UserCreate(username="temporal", password="pass1234"))

    crud.delete_user(db, user)

    assert crud.get_user_by_username(db, "temporal") is None


def test_password_hashes_are_salted() -> None:
    first = security.hash_password("admin")
    second = security.hash_password("admin")

    assert first != second
    assert security.verify_password("admin", first)
    assert security.verify_password("admin", second)
    assert not security.verify_password("admin", "not-a-hash")


def test_blank_skus_are_stored_as_missing(store, make_product, count_rows) -> None:
    first = make_product(sku="")
    second = make_product(sku="   ")

    assert first.sku is None
    assert second.sku is None
    assert count_rows(models.Product) == 2


def test_clearing_sku_on_update(make_product, db) -> None:
    product = make_product(sku="CLEAR-ME")

    updated = crud.update_product(db, crud.get_product(db, product.id), schemas.ProductUpdate(sku=""))

    assert updated.sku is None


def test_registry_commit_failure_is_a_storage_error(make_product, db, monkeypatch) -> None:
    product = make_product(name="Creatine")

    def locked_commit() -> None:
        raise OperationalError("UPDATE products", {}, Exception("database is locked"))

    monkeypatch.setattr(db, "commit", locked_commit)
    with pytest.raises(StorageError) as excinfo:
        crud.update_product(db, crud.get_product(db, product.id), schemas.ProductUpdate(name="Creatine HCL"))

    assert str(excinfo.value) == "database is locked"
    assert excinfo.value.code == "STORAGE_ERROR"
    monkeypatch.undo()
    assert crud.get_product(db, product.id).name == "Creatine"
