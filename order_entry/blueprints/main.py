"""Main blueprint with health check endpoints."""
from flask import Blueprint, current_app, jsonify

main_bp = Blueprint('main', __name__)


@main_bp.route('/health')
def health():
    """
    Health check for the POS shell.

    Returns:
        200: Healthy (catalog snapshot loaded or not yet requested)
    """
    catalog = current_app.extensions.get('catalog')
    return jsonify({
        'status': 'healthy',
        'backend': current_app.config.get('BACKEND_API_URL'),
        'open_drafts': len(current_app.extensions['drafts']),
        'products_cached': len(catalog.products) if catalog else 0,
        'discounts_cached': len(catalog.discounts) if catalog else 0,
    }), 200


@main_bp.route('/health/cache')
def health_cache():
    """
    Cache health check endpoint.

    Returns:
        200: Cache OK or Degraded (catalog loads go straight to the backend)

    Note:
        This endpoint NEVER returns 500, as cache is optional.
    """
    try:
        from order_entry.services.cache_service import get_cache
        cache = get_cache()

        if cache.is_available():
            cache.set('system', 'health', 'check', {'test': 'ok'}, ttl=10)
            result = cache.get('system', 'health', 'check')

            if result and result.get('test') == 'ok':
                return jsonify({
                    'status': 'ok',
                    'cache': 'connected',
                    'message': 'Cache is working correctly'
                }), 200
            return jsonify({
                'status': 'degraded',
                'cache': 'error',
                'message': 'Redis connected but operations failing'
            }), 200

        return jsonify({
            'status': 'degraded',
            'cache': 'unavailable',
            'message': 'Cache disabled or Redis unavailable (catalog loads go to the backend)'
        }), 200

    except RuntimeError as e:
        return jsonify({
            'status': 'degraded',
            'cache': 'error',
            'error': str(e),
            'message': 'Cache health check failed'
        }), 200
