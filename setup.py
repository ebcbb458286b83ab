#!/usr/bin/env python
from setuptools import setup, find_packages

with open("README.md", "r", encoding='utf-8') as fh:
    long_description = fh.read()

setup(
    name="cloudtail",
    version="0.3.0",
    description="Follow, live tail and query AWS CloudWatch Logs",
    author="Caltech IMSS ADS",
    author_email="imss-ads-staff@caltech.edu",
    long_description=long_description,
    long_description_content_type="text/markdown",
    keywords=['aws', 'cloudwatch', 'logs', 'devops'],
    classifiers=[
       "Programming Language :: Python :: 3"
    ],
    packages=find_packages(),
    include_package_data=True,
    package_data={'cloudtail': ["py.typed"]},
    install_requires=[
        "boto3 >= 1.33",
        "cement>=3.0.0",
        "click >= 6.7",
        "colorlog",
        "python-dateutil",
        "PyYAML >= 5.1",
        "tabulate >= 0.8.1",
        "tzlocal >= 4.0.1",
    ],
    extras_require={
        'test': [
            "mock",
            "testfixtures",
        ],
    },
    entry_points={'console_scripts': [
        'cloudtail = cloudtail.main:main',
    ]}
)
