"""Catalog blueprint - products, categories, offers and search."""
from flask import Blueprint, request

from storefront.middleware import get_catalog, result_response

catalog_bp = Blueprint('catalog', __name__, url_prefix='/api')


def _flag(name: str) -> bool:
    return request.args.get(name, '').lower() in ('1', 'true', 'yes')


@catalog_bp.route('/products', methods=['GET'])
def list_products():
    limit = request.args.get('limit', type=int)
    result = get_catalog().fetch_products(
        category_id=request.args.get('category_id'),
        featured=_flag('featured'),
        bestseller=_flag('bestseller'),
        search=request.args.get('search'),
        sort_by=request.args.get('sort_by', 'created_at'),
        ascending=_flag('ascending'),
        limit=limit,
    )
    return result_response(result)


@catalog_bp.route('/products/featured', methods=['GET'])
def featured_products():
    return result_response(get_catalog().fetch_featured_products())


@catalog_bp.route('/products/bestsellers', methods=['GET'])
def bestseller_products():
    return result_response(get_catalog().fetch_bestseller_products())


@catalog_bp.route('/products/<slug>', methods=['GET'])
def product_detail(slug):
    return result_response(get_catalog().fetch_product_by_slug(slug))


@catalog_bp.route('/categories', methods=['GET'])
def list_categories():
    return result_response(get_catalog().fetch_categories())


@catalog_bp.route('/categories/<slug>/products', methods=['GET'])
def category_products(slug):
    return result_response(get_catalog().get_products_by_category(slug))


@catalog_bp.route('/offers', methods=['GET'])
def list_offers():
    return result_response(get_catalog().fetch_offers())


@catalog_bp.route('/search', methods=['GET'])
def search():
    return result_response(get_catalog().search_products(request.args.get('q', '')))
