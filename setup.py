#!/usr/bin/env python
from setuptools import find_packages, setup

VERSION = "0.1.0"
INSTALL_REQUIREMENTS = [
    "Django>=5.1",
    "celery>=5.3",
    "channels>=4.0",
    "channels-redis>=4.1",
    "django-ninja>=1.1",
    "django-redis>=5.4",
    "django-structlog>=8.0",
    "psycopg2-binary>=2.9",
    "pydantic>=2.0",
    "requests>=2.31",
    "sentry-sdk>=1.40",
    "structlog>=24.1",
]
TEST_REQUIREMENTS = ["daphne>=4.0", "pytest>=7.4", "pytest-django>=4.7"]
SCRIPTS = ["manage.py"]
DESCRIPTION = "Bulk ISBN import for library catalogs"
CLASSIFIERS = """\
Environment :: Web Environment
Framework :: Django
Programming Language :: Python
Programming Language :: Python :: 3.10
""".splitlines()

with open("README.md", "r") as f:
    LONG_DESCRIPTION = f.read()


setup(
    name="laurel",
    version=VERSION,
    description=DESCRIPTION,
    long_description=LONG_DESCRIPTION,
    long_description_content_type="text/markdown",
    packages=find_packages(),
    include_package_data=True,
    package_data={"importer": ["templates/emails/*"]},
    scripts=SCRIPTS,
    install_requires=INSTALL_REQUIREMENTS,
    extras_require={"test": TEST_REQUIREMENTS},
    python_requires=">=3.10",
    classifiers=CLASSIFIERS,
)
