# src/schengen_agent/monitor/catalog.py

from __future__ import annotations

from typing import Final

from .models import Account, Portal

COUNTRY_PORTAL_MAP: Final[dict[str, Portal]] = {
    "DE": Portal.IDATA,
    "IT": Portal.IDATA,
    "CZ": Portal.IDATA,
    "NL": Portal.IDATA,
    "FR": Portal.VFS,
    "ES": Portal.VFS,
    "BE": Portal.VFS,
}

PORTAL_URLS: Final[dict[Portal, str]] = {
    Portal.IDATA: "https://www.idata.com.tr/tr",
    Portal.VFS: "https://www.vfsglobal.com/",
}

CENTERS_TR: Final[dict[str, list[str]]] = {
    "Ankara": ["VFS Ankara", "iDATA Ankara"],
    "İstanbul": ["VFS İstanbul", "iDATA İstanbul Avrupa", "iDATA İstanbul Anadolu"],
    "İzmir": ["VFS İzmir", "iDATA İzmir"],
    "Antalya": ["VFS Antalya", "iDATA Antalya"],
    "Bursa": ["VFS Bursa", "iDATA Bursa"],
    "Gaziantep": ["VFS Gaziantep"],
    "Adana": ["VFS Adana"],
    "Trabzon": ["VFS Trabzon"],
}


def portal_for_country(country: str | None) -> Portal | None:
    return COUNTRY_PORTAL_MAP.get((country or "").strip().upper())


def accounts_for_country(accounts: list[Account], country: str | None) -> list[Account]:
    """Accounts usable for a destination country; all accounts if the country is unmapped."""
    portal = portal_for_country(country)
    if portal is None:
        return list(accounts)
    return [a for a in accounts if a.portal is portal]


def centers_for_city(city: str | None) -> list[str]:
    return list(CENTERS_TR.get((city or "").strip(), []))
