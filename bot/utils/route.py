import re

from constants.route import OPEN_METHODS, OPEN_ROUTES, VERSION_PATTERN

from sanic.request import Request


def is_method_open(request: Request) -> bool:
    return request.method in OPEN_METHODS


def is_route_open(request: Request) -> bool:
    """Routes that don't need the API key, matched without their version prefix."""
    stripped_path = VERSION_PATTERN.sub("/", request.path)
    return any(
        request.method == method and re.match(pattern, stripped_path)
        for method, pattern in OPEN_ROUTES
    )
