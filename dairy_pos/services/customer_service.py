# ==============================================================================
# SERVICIO DE CLIENTES
# ==============================================================================
# CRUD de clientes y resolución del cliente en el checkout.
# El teléfono (cuando no está vacío) identifica al cliente dentro de un dueño.
# ==============================================================================

from typing import Any, Dict, List, Optional

from dairy_pos.models import Customer
from dairy_pos.repositories.base import RepositoryError, DuplicateRecordError
from dairy_pos.repositories.interfaces import ICustomerRepository
from dairy_pos.services.audit_service import AuditService
from dairy_pos.performance_logger import log_error


DUPLICATE_PHONE_MESSAGE = 'Customer with this phone already exists.'


def _as_bool(value: Any, default: bool = True) -> bool:
    if value is None or value == '':
        return default
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    return bool(value)


class CustomerService:
    """
    Servicio para gestión de clientes.

    Responsabilidades:
    - Alta, edición y baja de clientes
    - Unicidad de teléfono por dueño
    - ensure_customer: buscar por teléfono o crear (checkout)
    """

    def __init__(self, customer_repo: ICustomerRepository, audit_service: AuditService = None):
        self.customer_repo = customer_repo
        self.audit_service = audit_service

    def list_customers(self, owner: str) -> List[Customer]:
        return [Customer.from_dict(c) for c in self.customer_repo.get_customers(owner)]

    def ensure_customer(self, owner: str, name: str, phone: str, religion: str = '', general: bool = True) -> Customer:
        """
        Devuelve el cliente con ese teléfono o crea uno nuevo.

        Si el teléfono ya existe se devuelve el registro tal cual: el nombre,
        religión y flag general recibidos NO lo sobrescriben. Con teléfono
        vacío siempre se crea un cliente nuevo.

        Args:
            owner: Dueño
            name: Nombre (quien llama pone "Walk-in" si viene vacío)
            phone: Teléfono ya recortado

        Returns:
            Cliente existente o recién creado

        Raises:
            RepositoryError: Si la lectura o la escritura fallan
        """
        if phone:
            existing = self.customer_repo.find_by_phone(owner, phone)
            if existing:
                return Customer.from_dict(existing)

        created = self.customer_repo.create_customer(owner, {
            'name': name,
            'phone': phone,
            'religion': religion or '',
            'general': bool(general),
        })
        return Customer.from_dict(created)

    def _stored(self, owner: str, customer_id: str) -> Optional[Dict[str, Any]]:
        return next(
            (c for c in self.customer_repo.get_customers(owner) if c.get('id') == customer_id),
            None
        )

    def save_customer(self, owner: str, form: Dict[str, Any], customer_id: str = None) -> Dict[str, Any]:
        """
        Crea o actualiza un cliente desde el formulario.

        Al actualizar, solo cambian los campos presentes en `form`; el resto
        conserva el valor guardado.

        Args:
            owner: Dueño
            form: name, phone, religion, general
            customer_id: ID a actualizar (None = crear)

        Returns:
            Dict con ok, customer o error
        """
        try:
            base = {}
            if customer_id:
                base = self._stored(owner, customer_id)
                if base is None:
                    return {'ok': False, 'error': 'Customer not found'}

            name = (form['name'] if 'name' in form else base.get('name')) or ''
            phone = (form['phone'] if 'phone' in form else base.get('phone')) or ''
            religion = (form['religion'] if 'religion' in form else base.get('religion')) or ''
            data = {
                'name': str(name).strip(),
                'phone': str(phone).strip(),
                'religion': str(religion).strip(),
                'general': _as_bool(form.get('general'), True) if 'general' in form
                else _as_bool(base.get('general'), True),
            }
            if not data['name']:
                return {'ok': False, 'error': 'Customer name is required.'}

            if data['phone']:
                existing = self.customer_repo.find_by_phone(owner, data['phone'])
                if existing and existing.get('id') != customer_id:
                    return {'ok': False, 'error': DUPLICATE_PHONE_MESSAGE}

            if customer_id:
                saved = self.customer_repo.update_customer(owner, customer_id, data)
            else:
                saved = self.customer_repo.create_customer(owner, data)
        except DuplicateRecordError:
            return {'ok': False, 'error': DUPLICATE_PHONE_MESSAGE}
        except RepositoryError as e:
            log_error('customer:save', e, owner)
            return {'ok': False, 'error': str(e), 'error_type': 'persistence'}

        customer = Customer.from_dict(saved)
        if self.audit_service:
            self.audit_service.log_customer_saved(owner, customer.id, customer.name, created=not customer_id)
        message = 'Customer updated.' if customer_id else 'Customer added.'
        return {'ok': True, 'message': message, 'customer': customer.to_dict()}

    def delete_customer(self, owner: str, customer_id: str) -> Dict[str, Any]:
        try:
            self.customer_repo.delete_customer(owner, customer_id)
        except RepositoryError as e:
            log_error('customer:delete', e, owner)
            return {'ok': False, 'error': str(e), 'error_type': 'persistence'}
        if self.audit_service:
            self.audit_service.log_customer_deleted(owner, customer_id)
        return {'ok': True, 'message': 'Customer deleted.'}
