#!/usr/bin/env python3
import os
import re
from setuptools import setup

def read_stuff():
    ROOT_PATH = os.path.dirname(os.path.realpath(__file__))

    # read README.rst
    README_PATH = os.path.join(ROOT_PATH, 'README.rst')
    with open(README_PATH, 'r', encoding='utf-8') as file:
        long_description = file.read()

    # read module version
    VERSION_PATH = os.path.join(ROOT_PATH, 'src', 'csvdeflate', '_version.py')
    with open(VERSION_PATH, 'r', encoding='utf-8') as file:
        file_content = file.read()
        m = re.search(r'''__version__\s*=\s*(['"])(.*?)\1''', file_content)
        module_version = m.group(2)

    return long_description, module_version

def do_setup():
    # read stuff
    long_description, module_version = read_stuff()

    setup(
        name='csvdeflate',
        version=module_version,
        description=("Read and write gzip or zstd compressed CSV/TSV files, "
                     "the codec is selected by the file extension."),
        long_description=long_description,
        long_description_content_type='text/x-rst',
        license='The 3-Clause BSD License',
        python_requires='>=3.10',

        classifiers=[
            "Development Status :: 4 - Beta",
            "Intended Audience :: Developers",
            "Topic :: System :: Archiving :: Compression",
            "License :: OSI Approved :: BSD License",
            "Programming Language :: Python :: 3.10",
            "Programming Language :: Python :: 3.11",
            "Programming Language :: Python :: 3.12",
            "Programming Language :: Python :: 3.13",
            "Programming Language :: Python :: 3.14",
        ],
        keywords='csv tsv zstandard zstd zst gzip gz',

        package_dir={'': 'src'},
        packages=['csvdeflate'],
        package_data={'csvdeflate': ['py.typed']},

        install_requires=[
            'backports.zstd>=1.0.0; python_version<"3.14"',
            'typing_extensions>=4.0.0; python_version<"3.12"',
        ],
        extras_require={
            'test': ['pytest'],
        },

        test_suite='tests'
    )

if __name__ == '__main__':
    do_setup()
