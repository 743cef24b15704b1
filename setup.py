from setuptools import setup, find_packages

setup(
    name="studyhub",
    version="0.1",
    packages=find_packages(include=["studyhub", "studyhub.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi",
        "uvicorn",
        "sqlalchemy",
        "psycopg2-binary",
        "python-jose[cryptography]",
        "passlib[bcrypt]",
        "bcrypt==4.0.1",  # passlib reads bcrypt.__about__, removed in 4.1
        "python-multipart",
        "pydantic[email]",
        "pydantic-settings",
        "python-dotenv",
        "httpx",
    ],
    extras_require={
        "test": [
            "pytest",
            "httpx",
        ],
    },
)
