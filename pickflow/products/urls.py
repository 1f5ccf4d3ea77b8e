from rest_framework.routers import DefaultRouter

from .views import ProductPackageViewSet, ProductViewSet

router = DefaultRouter()
router.register(r"catalog/products", ProductViewSet, basename="product")
router.register(r"catalog/packages", ProductPackageViewSet, basename="product-package")

urlpatterns = router.urls
