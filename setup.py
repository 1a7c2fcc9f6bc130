"""Setup script for the CoinPayments gateway."""

from setuptools import setup, find_packages

setup(
    name="coinpayments-gateway",
    version="1.0.0",
    description="CoinPayments payment intake with signed IPN status confirmation",
    author="UniversalFileLab",
    python_requires=">=3.10",
    packages=find_packages(include=["coinpayments_gateway", "coinpayments_gateway.*"]),
    install_requires=[
        line.strip()
        for line in open("requirements.txt")
        if line.strip() and not line.startswith("#") and not line.startswith("git+")
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.23.0",
            "aiosqlite>=0.19.0",
        ],
        "dev": [
            "black>=23.0.0",
            "isort>=5.12.0",
            "flake8>=6.0.0",
            "mypy>=1.4.0",
            "pytest-cov>=4.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "coinpayments-gateway=coinpayments_gateway.api.main:main",
        ]
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Framework :: FastAPI",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
