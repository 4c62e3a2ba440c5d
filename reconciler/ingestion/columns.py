"""
Column Synonym Tables

Declarative mapping from engine field names to the header names found in
exported spreadsheets (French and English variants). Header comparison is
case-, accent- and whitespace-insensitive.
"""

import re
import unicodedata
from typing import Dict, Iterable, List

SALE_COLUMN_SYNONYMS: Dict[str, List[str]] = {
    "date": ["date", "date et heure", "datetime", "sale date"],
    "product_id": ["id", "product id", "id produit", "identifiant"],
    "product_name": ["produit", "nom", "nom article", "product", "product name", "article"],
    "quantity": ["qté", "qte", "quantité", "quantite", "quantity", "qty"],
    "unit_price_incl": [
        "prix unitaire ttc", "prix unitaire", "prix de vente ttc unitaire",
        "prix ttc", "prix_ttc", "unit price",
    ],
    "line_amount_incl": ["montant ttc", "montant", "montantttc", "line amount", "amount"],
    "order_ref": ["commande", "order", "order ref", "n° commande"],
    "store": ["boutique", "magasin", "store", "shop"],
    "cashier": ["caissier", "cashier"],
    "client": ["client", "customer"],
    "supplier": ["fournisseur", "supplier"],
    "manufacturer": ["fabricant", "fabriquant", "manufacturer"],
    "payment": ["paiement", "payment", "mode de paiement"],
    "category": ["cat. défaut", "cat. racine", "catégorie", "category"],
    "operation_id": ["#op", "op", "operation", "numéro opération"],
    "purchase_price": ["prix d'achat", "prix achat", "purchase price"],
    "is_return": ["retour", "return", "is return"],
}

PRODUCT_COLUMN_SYNONYMS: Dict[str, List[str]] = {
    "id": ["id", "identifiant", "product id", "id produit", "code"],
    "name": ["nom", "name", "produit", "product", "libellé", "désignation"],
    "category": ["catégorie", "category", "cat. défaut", "cat. racine", "famille"],
    "purchase_price": ["prix achat ht", "prix d'achat ht", "prix d'achat", "prix achat", "purchase price", "cost"],
    "sell_price": ["prix vente ttc", "prix de vente ttc", "prix ttc", "sell price", "price"],
}

SALE_REQUIRED_FIELDS = ["product_id", "product_name", "quantity"]
PRODUCT_REQUIRED_FIELDS = ["id", "name"]


def normalize_header(header: str) -> str:
    """Lower-case, strip accents and collapse whitespace"""
    decomposed = unicodedata.normalize("NFKD", str(header))
    without_accents = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return re.sub(r"\s+", " ", without_accents).strip().lower()


def resolve_columns(headers: Iterable[str], synonyms: Dict[str, List[str]]) -> Dict[str, str]:
    """
    Map engine fields to the source headers that carry them.

    Synonyms are tried in the order listed; a header is used for one field
    only and the first field to claim it keeps it.

    Returns:
        Dict of field name -> original header
    """
    by_normalized: Dict[str, str] = {}
    for header in headers:
        by_normalized.setdefault(normalize_header(header), header)

    resolved: Dict[str, str] = {}
    claimed = set()
    for field_name, candidates in synonyms.items():
        for candidate in [field_name] + candidates:
            header = by_normalized.get(normalize_header(candidate))
            if header is not None and header not in claimed:
                resolved[field_name] = header
                claimed.add(header)
                break
    return resolved
