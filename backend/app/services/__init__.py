# backend/app/services/__init__.py
"""
Business logic, kept free of HTTP concerns.

Services take a Session (and collaborators) through their constructor or
method arguments and raise the domain exceptions in exceptions.py; the
routers translate nothing themselves, app/main.py does.

    services/
    ├── exceptions.py            domain error hierarchy
    ├── constants.py             tolerances, TTLs, column maps
    ├── currency_converter.py    directed rate table, rate CRUD
    ├── auth/                    JWT bearer tokens
    ├── market_data/             provider ABC, Yahoo, PriceOracle
    ├── valuation/               holdings, summary, history, snapshots
    └── importer/                CSV detection, parsing, dedup, export
"""
