from setuptools import setup

main_script = "CobberLearnSlope"

install_requires = [
    "numpy",
    "matplotlib",
    "PyQt6",
]

extras_require = {
    "test": ["pytest>=7", "pytest-qt"],
}

setup(
    name="CobberSlope",
    version="1.0",
    description="Gradient descent learning lab: fitting y = a*x by minimizing mean squared error",
    packages=["labs"],
    py_modules=[main_script],
    python_requires=">=3.8",
    install_requires=install_requires,
    extras_require=extras_require,
    entry_points={
        "console_scripts": [f"cobber-slope = {main_script}:main"],
    },
)
