"""
Catalog blueprint - products and product categories of the gym shop.
"""
from flask import Blueprint, g, request

from gymapp.database import get_session
from gymapp.decorators.permissions import require_permission, require_any_permission
from gymapp.exceptions import ValidationError
from gymapp.services import catalog_service
from gymapp.services.catalog_service import UPDATABLE_PRODUCT_FIELDS
from gymapp.utils.pagination import parse_page_args
from gymapp.utils.responses import success_response, get_json_body

catalog_bp = Blueprint('catalog', __name__, url_prefix='/api')


# =====================================================
# CATEGORIES
# =====================================================

@catalog_bp.route('/product-categories', methods=['GET'])
@require_any_permission(['product_categories.read', 'products.read'])
def list_categories():
    categories = catalog_service.list_categories(get_session(), g.gym_id)
    return success_response(categories, 'Categories retrieved successfully')


@catalog_bp.route('/product-categories', methods=['POST'])
@require_permission('product_categories.create')
def create_category():
    data = get_json_body()
    category = catalog_service.create_category(
        get_session(), g.gym_id, data.get('name'), data.get('image_url')
    )
    return success_response(category.to_dict(), 'Category created successfully', 201)


@catalog_bp.route('/product-categories/<int:category_id>', methods=['DELETE'])
@require_permission('product_categories.delete')
def delete_category(category_id):
    catalog_service.delete_category(get_session(), g.gym_id, category_id)
    return success_response(None, 'Category deleted successfully')


# =====================================================
# PRODUCTS
# =====================================================

@catalog_bp.route('/products', methods=['GET'])
@require_permission('products.read')
def list_products():
    page, limit = parse_page_args(request.args.get('page'), request.args.get('limit'))
    products, pagination = catalog_service.list_products(
        get_session(), g.gym_id,
        category_id=request.args.get('category_id', type=int),
        search=request.args.get('search'),
        active_only=request.args.get('active_only', '').lower() in ('1', 'true'),
        page=page, limit=limit
    )
    return success_response(
        [p.to_dict() for p in products], 'Products retrieved successfully', pagination=pagination
    )


@catalog_bp.route('/products/stats', methods=['GET'])
@require_permission('products.read')
def product_stats():
    stats = catalog_service.get_product_stats(get_session(), g.gym_id)
    return success_response(stats, 'Product statistics retrieved successfully')


@catalog_bp.route('/products/<int:product_id>', methods=['GET'])
@require_permission('products.read')
def get_product(product_id):
    product = catalog_service.get_product(get_session(), g.gym_id, product_id)
    return success_response(product.to_dict(), 'Product retrieved successfully')


@catalog_bp.route('/products', methods=['POST'])
@require_permission('products.create')
def create_product():
    data = get_json_body()
    product = catalog_service.create_product(
        get_session(), g.gym_id,
        category_id=data.get('category_id'),
        name=data.get('name'),
        price=data.get('price'),
        stock_quantity=data.get('stock_quantity', 0),
        description=data.get('description'),
        image_url=data.get('image_url')
    )
    return success_response(product.to_dict(), 'Product created successfully', 201)


@catalog_bp.route('/products/<int:product_id>', methods=['PUT'])
@require_permission('products.update')
def update_product(product_id):
    data = get_json_body()
    fields = {key: data[key] for key in UPDATABLE_PRODUCT_FIELDS if key in data}
    product = catalog_service.update_product(get_session(), g.gym_id, product_id, **fields)
    return success_response(product.to_dict(), 'Product updated successfully')


@catalog_bp.route('/products/<int:product_id>/stock', methods=['PATCH'])
@require_permission('products.update')
def set_stock(product_id):
    data = get_json_body()
    if 'stock_quantity' not in data:
        raise ValidationError('stock_quantity is required')
    product = catalog_service.set_stock(get_session(), g.gym_id, product_id, data['stock_quantity'])
    return success_response(product.to_dict(), 'Stock updated successfully')


@catalog_bp.route('/products/<int:product_id>/toggle', methods=['PATCH'])
@require_permission('products.update')
def toggle_product(product_id):
    product = catalog_service.toggle_activation(get_session(), g.gym_id, product_id)
    state = 'activated' if product.is_active else 'deactivated'
    return success_response(product.to_dict(), f'Product {state} successfully')


@catalog_bp.route('/products/<int:product_id>', methods=['DELETE'])
@require_permission('products.delete')
def delete_product(product_id):
    catalog_service.delete_product(get_session(), g.gym_id, product_id)
    return success_response(None, 'Product deleted successfully')
