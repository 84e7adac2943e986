"""
Integration tests for the shop catalog.
"""

import pytest
from decimal import Decimal

from gymapp.exceptions import ValidationError, ConflictError, NotFoundError, InvalidOperationError
from gymapp.services import catalog_service


def test_create_product(session, gym1, category):
    product = catalog_service.create_product(
        session, gym1.id, category.id, 'Resistance Band', '12.5', stock_quantity=3
    )
    assert product.price == Decimal('12.50')
    assert product.is_active is True


def test_duplicate_product_name_in_category(session, gym1, category, product):
    with pytest.raises(ConflictError):
        catalog_service.create_product(session, gym1.id, category.id, 'Whey Protein', 10)


@pytest.mark.parametrize('price', [-1, 'abc', None, True, 'NaN'])
def test_invalid_price(session, gym1, category, price):
    with pytest.raises(ValidationError):
        catalog_service.create_product(session, gym1.id, category.id, 'Gloves', price)


def test_category_of_other_gym(session, gym2, category):
    with pytest.raises(NotFoundError):
        catalog_service.create_product(session, gym2.id, category.id, 'Gloves', 10)


def test_set_stock(session, gym1, product):
    assert catalog_service.set_stock(session, gym1.id, product.id, 40).stock_quantity == 40
    with pytest.raises(ValidationError):
        catalog_service.set_stock(session, gym1.id, product.id, -1)


def test_toggle_activation(session, gym1, product):
    assert catalog_service.toggle_activation(session, gym1.id, product.id).is_active is False
    assert catalog_service.toggle_activation(session, gym1.id, product.id).is_active is True


def test_update_product_rejects_stock_field(session, gym1, product):
    with pytest.raises(ValidationError):
        catalog_service.update_product(session, gym1.id, product.id, stock_quantity=100)


def test_update_product(session, gym1, product):
    updated = catalog_service.update_product(session, gym1.id, product.id, name='Whey Isolate', price='30')
    assert updated.name == 'Whey Isolate'
    assert updated.price == Decimal('30.00')


def test_category_in_use_cannot_be_deleted(session, gym1, category, product):
    with pytest.raises(InvalidOperationError):
        catalog_service.delete_category(session, gym1.id, category.id)


def test_category_lifecycle(session, gym1):
    category = catalog_service.create_category(session, gym1.id, 'Apparel')
    with pytest.raises(ConflictError):
        catalog_service.create_category(session, gym1.id, 'Apparel')

    catalog_service.delete_category(session, gym1.id, category.id)
    assert catalog_service.list_categories(session, gym1.id) == []
    # Name is free again once deleted
    catalog_service.create_category(session, gym1.id, 'Apparel')


def test_list_products_filters(session, gym1, product, second_product):
    items, pagination = catalog_service.list_products(session, gym1.id, search='whey')
    assert [p.id for p in items] == [product.id]

    catalog_service.toggle_activation(session, gym1.id, second_product.id)
    items, _ = catalog_service.list_products(session, gym1.id, active_only=True)
    assert [p.id for p in items] == [product.id]


@pytest.mark.parametrize('field', ['description', 'image_url'])
def test_text_fields_must_be_strings(session, gym1, category, product, field):
    with pytest.raises(ValidationError):
        catalog_service.create_product(
            session, gym1.id, category.id, 'Gloves', 10, **{field: {'en': 'Leather'}}
        )
    with pytest.raises(ValidationError):
        catalog_service.update_product(session, gym1.id, product.id, **{field: ['x']})


def test_blank_description_is_cleared(session, gym1, product):
    updated = catalog_service.update_product(session, gym1.id, product.id, description='   ')
    assert updated.description is None


def test_delete_product(session, gym1, category, product, second_product):
    catalog_service.delete_product(session, gym1.id, product.id)

    with pytest.raises(NotFoundError):
        catalog_service.get_product(session, gym1.id, product.id)
    items, _ = catalog_service.list_products(session, gym1.id)
    assert [p.id for p in items] == [second_product.id]

    # The name is free again; deleting twice is NotFound
    catalog_service.create_product(session, gym1.id, category.id, 'Whey Protein', 27)
    with pytest.raises(NotFoundError):
        catalog_service.delete_product(session, gym1.id, product.id)


def test_delete_product_of_other_gym(session, gym2, product):
    with pytest.raises(NotFoundError):
        catalog_service.delete_product(session, gym2.id, product.id)


def test_product_stats(session, gym1, product, second_product, product_gym2):
    catalog_service.set_stock(session, gym1.id, second_product.id, 0)
    catalog_service.toggle_activation(session, gym1.id, product.id)

    assert catalog_service.get_product_stats(session, gym1.id) == {
        'total': 2,
        'active': 1,
        'inactive': 1,
        'in_stock': 1,
        'out_of_stock': 1,
        'total_stock_items': 5,
    }
