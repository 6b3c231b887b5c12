# This file makes the routers directory a Python package

from .directory import router as directory_router

routers = [
    directory_router,
]
