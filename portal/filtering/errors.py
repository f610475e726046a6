from __future__ import annotations


class FilterError(Exception):
    """A list-endpoint query parameter that cannot be turned into a query.

    Raised for client mistakes only, so it is always reported as a 400.
    """

    status_code = 400

    def __init__(self, field: str, detail: str):
        super().__init__(detail)
        self.field = field
        self.detail = detail


class AttributeNotFoundError(FilterError):
    def __init__(self, path: str, segment: str, entity: str):
        super().__init__(path, f'Unknown attribute "{segment}" in "{path}" for {entity}')
        self.path = path
        self.segment = segment
        self.entity = entity


class FilterValueError(FilterError):
    def __init__(self, field: str, raw_value, kind: str):
        super().__init__(field, f'Invalid value "{raw_value}" for field "{field}" ({kind})')
        self.raw_value = raw_value
        self.kind = kind
