from django.contrib import admin
from django.urls import path
from ninja import NinjaAPI

from importer.api import router as imports_router

api = NinjaAPI(version=None, urls_namespace="api")
api.add_router("/imports", imports_router)

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/", api.urls, name="api"),
]
