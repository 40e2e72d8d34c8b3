"""
trajsmooth: predict smoothed gene expression along pseudotime lineages from fitted GAMs
"""

# Always prefer setuptools over distutils
from setuptools import setup, find_packages
# To use a consistent encoding
from codecs import open
from os import path

here = path.abspath(path.dirname(__file__))

# Get the long description from the relevant file
with open(path.join(here, 'README.md'), encoding='utf-8') as f:
    long_description = f.read()


setup(
    name='trajsmooth',

    # Versions should comply with PEP440.  For a discussion on single-sourcing
    # the version across setup.py and the project code, see
    # https://packaging.python.org/en/latest/single_source_version.html
    version='0.1',

    description='trajsmooth: predicted mean smoothers of lineage GAMs on a uniform pseudotime grid',
    long_description=long_description,
    long_description_content_type='text/markdown',

    # Author details
    author='Weizhong Zheng',
    author_email='wz369@cam.ac.uk',

    # Choose your license
    license='Apache-2.0',

    # What does your project relate to?
    keywords=['single-cell', 'pseudotime', 'trajectory',
              'generalized additive model', 'tradeSeq'],

    # You can just specify the packages manually here if your project is
    # simple. Or you can use find_packages().
    package_dir={'': 'src'},
    packages=find_packages(where='src'),

    # List run-time dependencies here.  These will be installed by pip when
    # your project is installed. For an analysis of "install_requires" vs pip's
    # requirements files see:
    # https://packaging.python.org/en/latest/requirements.html

    install_requires = ['numpy>=1.9.0', 'scipy>=1.4.0', 'pandas', 'statsmodels>=0.13', 'tqdm'],
    include_package_data=True,

    extras_require={
        'test': [
            'pytest']},

)
