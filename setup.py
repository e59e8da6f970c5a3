from setuptools import find_packages, setup

setup(
    name="lensdash",
    version="0.1.0",
    description="Lens dashboard for exploring issue dependency graphs by label, epic or issue",
    packages=find_packages(include=["lensdash", "lensdash.*"]),
    include_package_data=True,
    install_requires=["pydantic>=2", "PyYAML"],
    extras_require={"test": ["pytest"]},
    entry_points={"console_scripts": ["lensdash=lensdash.cli:main"]},
)
