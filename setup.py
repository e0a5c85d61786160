"""Setup configuration for the purchase-service project."""

from setuptools import setup, find_packages

setup(
    name="purchase-service",
    version="1.0.0",
    description="E-commerce purchase backend: stock reservation, orders and PayPal payment relay",
    author="Your Name",
    packages=find_packages(),
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.109.0",
        "uvicorn>=0.27.0",
        "confluent-kafka>=2.3.0",
        "sqlalchemy>=2.0.23",
        "psycopg2-binary>=2.9.9",
        "pydantic>=2.5.0",
        "pydantic-settings>=2.1.0",
        "httpx>=0.26.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
        ],
    },
)
