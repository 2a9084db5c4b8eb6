from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="gps-to-mqtt",
    version="1.0.0",
    author="GOLF86 Telemetry",
    description="Publishes NMEA-0183 data from a serial GPS receiver to MQTT",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
    ],
    python_requires=">=3.10",
    install_requires=[
        "paho-mqtt>=2.0.0",
        "pyserial>=3.5",
        "pyserial-asyncio>=0.6",
        "pydantic>=2.5.0",
        "pydantic-settings[toml]>=2.2.0",
        "python-dotenv>=1.0.0",
        "structlog>=24.1.0",
        "prometheus-client>=0.19.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.23.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "gps-to-mqtt=gps_to_mqtt.__main__:run",
        ],
    },
)
