"""
Profit Insights Backend Package.

FastAPI service layer for the time tracking and profitability analysis
product. Provides the insights generation pipeline: metric aggregation,
generative analysis fan-out, ranking, and weekly summaries.

Subpackages:
    - api: FastAPI route handlers
    - core: Configuration, database, and dependencies
    - models: Pydantic schemas and enums
    - services: Pipeline stages and the insights engine
    - sql: Parameterized SQL queries
"""

__version__ = "1.0.0"
