import setuptools

setuptools.setup(
    name="beam_hmm",
    version="0.1.0",
    license="MIT",
    packages=setuptools.find_packages(exclude=["tests", "tests.*"]),
    description="A beam sampler for hierarchical Dirichlet process hidden Markov models",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3.8",
    ],
    python_requires=">=3.8",
    install_requires=["scipy", "numpy", "terminaltables", "tqdm", "sympy"],
    extras_require={"test": ["pytest", "pytest-cov"]},
)
