"""
Catalog resolution for external order lines.

Maps the identifier an upstream system puts on an order line (a stock code,
an ERP code or a package barcode) to an internal product and, for products
shipped in several boxes, the specific package that line refers to.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from products.models import Product, ProductPackage

logger = logging.getLogger(__name__)


class MatchSource:
    PACKAGE_BARCODE = "package_barcode"
    SKU = "sku"
    ERP_CODE = "erp_code"


@dataclass(frozen=True)
class CatalogMatch:
    product: Product
    package: Optional[ProductPackage]
    matched_on: str


@dataclass
class ResolutionResult:
    lines: list[dict[str, Any]] = field(default_factory=list)
    unmatched: list[dict[str, Any]] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return not self.unmatched


class CatalogResolver:
    """
    Exact, case-sensitive identifier matching.

    Lookup order is package barcode, then product SKU, then product ERP code.
    When several rows match, the one with the lowest id wins.
    """

    @staticmethod
    def resolve_line(identifier: Optional[str]) -> Optional[CatalogMatch]:
        """
        Resolve a single external line identifier.

        Args:
            identifier: Stock code, ERP code or package barcode from the order line

        Returns:
            CatalogMatch, or None when nothing in the catalog matches
        """
        if not identifier:
            return None

        package = (
            ProductPackage.objects.select_related("product")
            .filter(barcode=identifier, product__is_active=True)
            .order_by("id")
            .first()
        )
        if package is not None:
            return CatalogMatch(package.product, package, MatchSource.PACKAGE_BARCODE)

        product = Product.objects.filter(sku=identifier, is_active=True).first()
        if product is not None:
            return CatalogMatch(product, None, MatchSource.SKU)

        product = Product.objects.filter(erp_code=identifier, is_active=True).order_by("id").first()
        if product is not None:
            return CatalogMatch(product, None, MatchSource.ERP_CODE)

        return None

    @classmethod
    def resolve_lines(cls, lines: Iterable[dict[str, Any]]) -> ResolutionResult:
        """
        Resolve a batch of normalized order lines.

        Each line must carry an ``external_line_id``. Every line is returned in
        ``lines`` with ``product``, ``package`` and ``matched_on`` keys added;
        lines that do not resolve carry a null product and are also reported
        in ``unmatched``.
        """
        result = ResolutionResult()
        for line in lines:
            identifier = line.get("external_line_id")
            match = cls.resolve_line(identifier)
            if match is None:
                logger.info(f"No catalog match for external line id {identifier!r}")
                result.unmatched.append({
                    "line_number": line.get("line_number"),
                    "external_line_id": identifier,
                    "quantity": line.get("quantity"),
                })
                result.lines.append({**line, "product": None, "package": None, "matched_on": None})
                continue
            result.lines.append({
                **line,
                "product": match.product,
                "package": match.package,
                "matched_on": match.matched_on,
            })
        return result


def resolve_line(identifier: Optional[str]) -> Optional[CatalogMatch]:
    return CatalogResolver.resolve_line(identifier)
