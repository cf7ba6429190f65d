import setuptools

with open("README.md", "r") as fh:
    long_description = fh.read()

setuptools.setup(
    name="bcldemux",
    version="0.0.1",
    description="A package and executable for demultiplexing Illumina base calls by lane",
    long_description=long_description,
    long_description_content_type="text/markdown",
    install_requires=[
        "biopython",
        "pyyaml"
        ],
    extras_require={
        "test": ["pytest"],
        },
    packages=setuptools.find_packages(exclude=["test_*"]),
    package_data={"bcldemux": ["data/*.yml"]},
    include_package_data=True,
    entry_points={'console_scripts': [
        'bcldemux=bcldemux.__main__:main',
    ]},
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: GNU Affero General Public License v3 or later (AGPLv3+)",
        "Operating System :: POSIX :: Linux",
    ],
)
