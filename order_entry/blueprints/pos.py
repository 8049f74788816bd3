"""POS blueprint - JSON endpoints driving the order draft of the current session."""
import uuid
from typing import Any, Dict

from flask import Blueprint, current_app, jsonify, request, session

from order_entry.exceptions import BusinessLogicError
from order_entry.services.draft_service import OrderDraft, build_draft
from order_entry.services.order_service import OrderAssembler

pos_bp = Blueprint('pos', __name__, url_prefix='/pos')

SESSION_DRAFT_KEY = 'pos_draft_id'


def _catalog():
    return current_app.extensions['catalog']


def _ensure_products() -> None:
    catalog = _catalog()
    if not catalog.products:
        catalog.refresh_products()


def _ensure_customers() -> None:
    catalog = _catalog()
    if not catalog.customers:
        catalog.refresh_customers()


def _draft_key() -> str:
    if SESSION_DRAFT_KEY not in session:
        session[SESSION_DRAFT_KEY] = uuid.uuid4().hex
    return session[SESSION_DRAFT_KEY]


def get_draft() -> OrderDraft:
    """Draft for the current session (role comes from the session set at login)."""
    registry = current_app.extensions['drafts']
    return registry.get_or_create(
        _draft_key(),
        lambda: build_draft(current_app.config, _catalog(), role=session.get('role'))
    )


def _assembler(draft: OrderDraft) -> OrderAssembler:
    return OrderAssembler(
        current_app.extensions['backend'],
        draft,
        currency=current_app.config.get('DEFAULT_CURRENCY'),
        walkin_email_domain=current_app.config.get('WALKIN_EMAIL_DOMAIN'),
        on_committed=current_app.extensions.get('receipt_hook'),
        catalog=_catalog(),
    )


def _body() -> Dict[str, Any]:
    return request.get_json(silent=True) or {}


def _int_field(data: Dict[str, Any], name: str) -> int:
    try:
        return int(data[name])
    except (KeyError, TypeError, ValueError):
        raise BusinessLogicError(f'{name} is required and must be a number')


def _respond(draft: OrderDraft, status: int = 200, **extra):
    body = {
        'status': 'success',
        'draft': draft.summary(),
        'notices': [notice.model_dump(mode='json') for notice in draft.notifier.drain()],
    }
    body.update(extra)
    return jsonify(body), status


@pos_bp.route('/draft', methods=['GET'])
def show_draft():
    return _respond(get_draft())


@pos_bp.route('/draft', methods=['DELETE'])
def discard_draft():
    """Terminal signs off: drop its draft and start clean on the next request."""
    key = session.pop(SESSION_DRAFT_KEY, None)
    discarded = bool(key) and current_app.extensions['drafts'].discard(key)
    return jsonify({'success': True, 'discarded': discarded}), 200


@pos_bp.route('/items', methods=['POST'])
def add_item():
    """Add by `product_id` or by scanned `barcode`."""
    data = _body()
    _ensure_products()
    draft = get_draft()
    if data.get('barcode'):
        draft.add_by_barcode(str(data['barcode']))
    else:
        draft.add_product(_int_field(data, 'product_id'))
    return _respond(draft, 201)


@pos_bp.route('/items/<int:product_id>', methods=['PATCH'])
def update_item(product_id: int):
    """
    Change a line quantity.

    Body: {"quantity": 3} | {"text": "5", "commit": false} | {"quick": 50}
    """
    data = _body()
    draft = get_draft()
    if 'quick' in data:
        draft.apply_quick_quantity(product_id, _int_field(data, 'quick'))
    elif 'text' in data:
        draft.enter_quantity(product_id, data['text'], commit=bool(data.get('commit', False)))
    else:
        draft.set_quantity(product_id, _int_field(data, 'quantity'))
    return _respond(draft)


@pos_bp.route('/items/<int:product_id>', methods=['DELETE'])
def remove_item(product_id: int):
    draft = get_draft()
    draft.remove_item(product_id)
    return _respond(draft)


@pos_bp.route('/customer', methods=['PUT'])
def set_customer():
    data = _body()
    draft = get_draft()
    customer_id = data.get('customer_id')
    if customer_id:
        _ensure_customers()
        draft.select_customer(_int_field(data, 'customer_id'))
    else:
        draft.set_customer(None)
    return _respond(draft)


@pos_bp.route('/payment', methods=['PUT'])
def set_payment():
    data = _body()
    draft = get_draft()
    try:
        if 'payment_method' in data:
            draft.set_payment_method(data['payment_method'])
        if 'payment_status' in data:
            draft.set_payment_status(data['payment_status'])
    except ValueError as e:
        raise BusinessLogicError(f'Invalid payment option: {e}')
    return _respond(draft)


@pos_bp.route('/notes', methods=['PUT'])
def set_notes():
    draft = get_draft()
    draft.set_notes(_body().get('notes'))
    return _respond(draft)


@pos_bp.route('/discounts/<int:discount_id>/toggle', methods=['POST'])
def toggle_discount(discount_id: int):
    draft = get_draft()
    selected = draft.toggle_discount(discount_id)
    return _respond(draft, selected=selected)


@pos_bp.route('/checkout', methods=['POST'])
def checkout():
    draft = get_draft()
    _assembler(draft).checkout()
    return _respond(draft)


@pos_bp.route('/cancel', methods=['POST'])
def cancel():
    draft = get_draft()
    _assembler(draft).cancel()
    return _respond(draft)


@pos_bp.route('/submit', methods=['POST'])
def submit():
    draft = get_draft()
    receipt = _assembler(draft).submit()
    return _respond(draft, 201, receipt=receipt.model_dump(mode='json'))


@pos_bp.route('/catalog/refresh', methods=['POST'])
def refresh_catalog():
    """Reload products, customers and the draft's discounts from the backend."""
    catalog = _catalog()
    catalog.invalidate()
    draft = get_draft()
    catalog.refresh_customers()
    catalog.refresh_products()
    draft.load_discounts()
    return _respond(
        draft,
        products=len(catalog.products),
        customers=len(catalog.customers),
    )


@pos_bp.route('/products', methods=['GET'])
def search_products():
    _ensure_products()
    products = _catalog().search_products(request.args.get('q', ''), limit=request.args.get('limit', 50, type=int))
    return jsonify({'status': 'success', 'products': [p.model_dump(mode='json') for p in products]})


@pos_bp.route('/customers', methods=['GET'])
def search_customers():
    _ensure_customers()
    customers = _catalog().search_customers(request.args.get('q', ''), limit=request.args.get('limit', 50, type=int))
    return jsonify({'status': 'success', 'customers': [c.model_dump(mode='json') for c in customers]})
