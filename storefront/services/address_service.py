"""Address Service - delivery addresses for the current user."""
import logging
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from storefront.models import Address
from storefront.exceptions import BusinessLogicError, NotFoundError, UnauthenticatedError
from storefront.services.result import Result, store_operation

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ('address_line1', 'city', 'state', 'pincode')
EDITABLE_FIELDS = ('label', 'address_line1', 'address_line2', 'city', 'state', 'pincode', 'landmark')


def _clean(data: Dict[str, Any]) -> Dict[str, Any]:
    cleaned = {}
    for key in EDITABLE_FIELDS:
        if key in data:
            value = data[key]
            cleaned[key] = value.strip() if isinstance(value, str) else value
    pincode = cleaned.get('pincode')
    if pincode is not None and not (str(pincode).isdigit() and len(str(pincode)) == 6):
        raise BusinessLogicError('Pincode must be 6 digits')
    return cleaned


class AddressBook:
    """Addresses owned by the current user; exactly one is the default."""

    def __init__(self, db: Session, get_user_id: Callable[[], Optional[str]]):
        self.db = db
        self.get_user_id = get_user_id

    def _require_user(self) -> str:
        user_id = self.get_user_id()
        if not user_id:
            raise UnauthenticatedError()
        return user_id

    def _get_owned(self, user_id: str, address_id: str) -> Address:
        address = self.db.query(Address).filter(
            Address.id == address_id,
            Address.user_id == user_id
        ).first()
        if not address:
            raise NotFoundError('Address not found')
        return address

    @store_operation('fetch addresses')
    def fetch_addresses(self) -> Result:
        user_id = self._require_user()
        rows = (self.db.query(Address)
                .filter(Address.user_id == user_id)
                .order_by(Address.is_default.desc(), Address.created_at.asc())
                .all())
        return Result.ok([a.to_dict() for a in rows])

    @store_operation('add address')
    def add_address(self, data: Dict[str, Any]) -> Result:
        user_id = self._require_user()
        fields = _clean(data)
        missing = [f for f in REQUIRED_FIELDS if not fields.get(f)]
        if missing:
            raise BusinessLogicError(f"Missing address fields: {', '.join(missing)}")

        has_any = self.db.query(Address.id).filter(Address.user_id == user_id).first() is not None
        make_default = bool(data.get('is_default')) or not has_any
        if make_default:
            self._unset_defaults(user_id)

        address = Address(user_id=user_id, is_default=make_default, **fields)
        self.db.add(address)
        self.db.commit()
        return Result.ok(address.to_dict())

    @store_operation('update address')
    def update_address(self, address_id: str, data: Dict[str, Any]) -> Result:
        user_id = self._require_user()
        address = self._get_owned(user_id, address_id)
        for key, value in _clean(data).items():
            if key in REQUIRED_FIELDS and not value:
                raise BusinessLogicError(f"'{key}' cannot be empty")
            setattr(address, key, value)
        self.db.commit()
        return Result.ok(address.to_dict())

    @store_operation('delete address')
    def delete_address(self, address_id: str) -> Result:
        user_id = self._require_user()
        address = self._get_owned(user_id, address_id)
        was_default = address.is_default
        self.db.delete(address)
        self.db.flush()

        if was_default:
            # Promote the oldest remaining address
            successor = (self.db.query(Address)
                         .filter(Address.user_id == user_id)
                         .order_by(Address.created_at.asc())
                         .first())
            if successor:
                successor.is_default = True
        self.db.commit()
        return Result.ok()

    @store_operation('set default address')
    def set_default(self, address_id: str) -> Result:
        user_id = self._require_user()
        address = self._get_owned(user_id, address_id)
        self._unset_defaults(user_id, keep_id=address.id)
        address.is_default = True
        self.db.commit()
        return Result.ok(address.to_dict())

    def _unset_defaults(self, user_id: str, keep_id: Optional[str] = None) -> None:
        query = self.db.query(Address).filter(Address.user_id == user_id, Address.is_default.is_(True))
        if keep_id:
            query = query.filter(Address.id != keep_id)
        query.update({Address.is_default: False}, synchronize_session=False)
