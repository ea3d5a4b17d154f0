from setuptools import setup, find_packages

setup(
    name="pagepilot",
    version="0.1.0",
    description="Step-based scripted navigation of web pages",
    author="pagepilot Team",
    packages=find_packages(include=["pagepilot", "pagepilot.*"]),
    package_data={"pagepilot": ["js/*.js"]},
    install_requires=[
        "pydantic>=2.5.0",
        "selenium>=4.10.0",
        "playwright>=1.40.0",
        "click>=8.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "black>=22.0.0",
            "isort>=5.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "pagepilot=pagepilot.cli:main",
        ],
    },
    python_requires=">=3.8",
)
