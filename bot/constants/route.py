import re

OPEN_ROUTES = [
    ("GET", r"^/$"),
    ("GET", r"^/health/?$"),
]
OPEN_METHODS = ["HEAD", "OPTIONS"]
VERSION_PATTERN = re.compile(r"^/v\d+/")
