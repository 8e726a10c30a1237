from setuptools import setup, find_packages

__version__ = None
with open('htseek/__version.py') as version_file:
    exec(version_file.read())

with open('README.md') as readme:
    setup(
        name='htseek',
        version=__version__,
        packages=find_packages(exclude=('tests', 'tests.*')),
        long_description=readme.read(),
        long_description_content_type='text/markdown',
        license='MIT',
        description='Random access to BGZF compressed genomic records through BAI binning indices',
        python_requires='>=3.6',
        install_requires=['numba'],
        extras_require={'test': ['pytest']},
        include_package_data=True
    )
