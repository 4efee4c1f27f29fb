from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]

setup(
    name="tenant-portal-e2e",
    version="1.0.0",
    description="End-to-end browser suite for the tenant portal with store verification and cleanup",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["portal_e2e", "portal_e2e.*"]),
    include_package_data=True,
    classifiers=[
        "Development Status :: 4 - Beta",
        "Framework :: Pytest",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Testing",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.10",
    install_requires=requirements,
    extras_require={
        "test": ["aiosqlite>=0.19"],
    },
    entry_points={
        "console_scripts": [
            "portal-e2e-migrate=portal_e2e.migrate:main",
        ],
    },
)
