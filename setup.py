import os
import re

from setuptools import find_packages
from setuptools import setup


with open(
    os.path.join(os.path.dirname(__file__), "pgstat_collectd", "__init__.py")
) as file_:
    VERSION = (
        re.compile(r".*__version__ = [\"'](.*?)[\"']", re.S)
        .match(file_.read())
        .group(1)
    )


readme = os.path.join(os.path.dirname(__file__), "README.rst")

requires = ["SQLAlchemy>=2.0"]


setup(
    name="pgstat-collectd",
    version=VERSION,
    description="Send PostgreSQL statistics view metrics to collectd",
    long_description=open(readme).read(),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: System Administrators",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Topic :: Database",
        "Topic :: System :: Monitoring",
    ],
    keywords="PostgreSQL collectd SQLAlchemy monitoring",
    license="MIT",
    packages=find_packages(".", exclude=["examples*", "*.tests"]),
    include_package_data=True,
    zip_safe=False,
    python_requires=">=3.8",
    install_requires=requires,
    extras_require={
        "postgresql": ["psycopg2"],
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": ["pgstat-poll = pgstat_collectd.poll.main:main"],
    },
)
