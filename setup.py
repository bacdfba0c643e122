from setuptools import setup


setup(
    name="roster-doctor",
    version="0.1.0",
    description="Header reconciliation and validation for messy client, worker and task sheets",
    packages=["roster_doctor"],
    include_package_data=True,
    install_requires=[
        "pandas",
        "chardet",
        "openpyxl",
        "rapidfuzz",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "roster-doctor=roster_doctor.cli:main",
        ]
    },
)
