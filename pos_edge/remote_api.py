"""
Client for the central POS REST API.

Each method is a single request/response round trip: no retry, no backoff.
Responses are expected as ``{"data": ...}``; the unwrapped ``data`` value is
returned. Transport and HTTP failures raise ``RemoteApiError``, bodies without
a ``data`` field raise ``MalformedResponseError``.
"""

import logging
import requests

logger = logging.getLogger(__name__)

ESSENTIAL_HEADERS = {
    'Content-Type': 'application/json',
    'Accept': 'application/json'
}


class RemoteApiError(Exception):
    """Network failure or non-2xx answer from the remote API."""

    def __init__(self, message, status_code=None, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload


class MalformedResponseError(RemoteApiError):
    """Remote answered, but not with a ``{data: ...}`` envelope."""


class RemoteApiClient:

    def __init__(self, base_url, timeout=30, session=None):
        self.base_url = (base_url or '').strip().rstrip('/')
        self.timeout = timeout
        self.http = session or requests.Session()

    def _url(self, path):
        return f"{self.base_url}/{path.lstrip('/')}"

    def _request(self, method, path, json_body=None, headers=None):
        request_headers = dict(ESSENTIAL_HEADERS)
        if headers:
            request_headers.update(headers)
        url = self._url(path)

        try:
            resp = self.http.request(method, url, json=json_body,
                                     headers=request_headers, timeout=self.timeout)
        except requests.Timeout:
            raise RemoteApiError(f'{method} {path} timed out')
        except requests.RequestException as e:
            raise RemoteApiError(f'{method} {path} failed: {e}')

        try:
            body = resp.json()
        except ValueError:
            body = None

        if resp.status_code < 200 or resp.status_code >= 300:
            message = None
            if isinstance(body, dict):
                message = body.get('message')
            raise RemoteApiError(message or f'HTTP {resp.status_code} from {method} {path}',
                                 status_code=resp.status_code, payload=body)

        if isinstance(body, dict) and body.get('success') is False:
            raise RemoteApiError(body.get('message') or f'{method} {path} was rejected',
                                 status_code=resp.status_code, payload=body)

        if not isinstance(body, dict) or 'data' not in body:
            logger.error(f"Malformed response from {method} {path}: {str(body)[:200]}")
            raise MalformedResponseError(f'Malformed response from {method} {path}',
                                         status_code=resp.status_code, payload=body)

        logger.debug(f"{method} {path} -> HTTP {resp.status_code}")
        return body['data']

    def get(self, path, headers=None):
        return self._request('GET', path, headers=headers)

    def post(self, path, json_body=None):
        return self._request('POST', path, json_body=json_body)

    def patch(self, path, json_body=None):
        return self._request('PATCH', path, json_body=json_body)

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    def get_stores(self, organization_id):
        return self.get('/store/getStore', headers={'organization-id': organization_id})

    def get_roles(self, store_id):
        return self.get(f'/roles/{store_id}')

    def get_employees(self, store_id):
        return self.get(f'/employees/{store_id}')

    def login(self, email, pin):
        return self.post('/employee/login', {'email': email, 'pin': pin})

    def get_categories(self, store_id):
        return self.get(f'/category/get/{store_id}')

    def delete_category(self, category_id):
        return self.patch(f'/category/delete/{category_id}')

    def update_category_status(self, category_id, status):
        return self.patch(f'/category/status/{category_id}', {'status': status})

    def get_inventory(self, store_id):
        return self.get(f'/inventory/get/{store_id}')

    def get_dishes(self, store_id):
        return self.get(f'/dish/get/{store_id}')

    def delete_dish(self, dish_id):
        return self.patch(f'/dish/delete/{dish_id}')

    def get_dish_inventory(self, dish_id):
        return self.get(f'/dishInventory/get/{dish_id}')

    def get_dish_addons(self, dish_id):
        return self.get(f'/addon/get/{dish_id}')

    def get_store_addons(self, store_id):
        return self.get(f'/addon/getAll/{store_id}')

    def delete_addon(self, addon_id):
        return self.patch(f'/addon/delete/{addon_id}')

    def get_customers(self, store_id):
        return self.get(f'/customer/get/{store_id}')

    def get_orders(self, store_id):
        return self.get(f'/order/get/{store_id}')

    def get_tables(self, store_id):
        return self.get(f'/table/get/{store_id}')
