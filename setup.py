from setuptools import setup, find_packages

setup(
    name="runscripts",
    version="0.1.0",
    description="runscripts - параллельный запуск скриптов с потоковым выводом и итоговой сводкой",
    author="runscripts Team",
    package_dir={"": "src"},
    packages=find_packages("src"),
    include_package_data=True,
    python_requires=">=3.10",
    install_requires=[
        "typer>=0.16.0",
        "rich>=13.7.1",
        "PyYAML>=6.0.2",
        "psutil>=5.9.0",
        "python-dotenv>=1.0.1",
    ],
    extras_require={
        "test": [
            "pytest>=8.3.2",
            "pytest-asyncio>=0.23.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "runscripts=runscripts.apps.cli.app:app",  # команда `runscripts`
        ],
    },
)
