from setuptools import setup
import os
import re


def get_version(this_directory):
    with open(os.path.join(this_directory, 'egfrdiff', '__init__.py')) as f:
        return re.search(r"^__version__ = '([^']+)'", f.read(), re.M).group(1)


def main():
    this_directory = os.path.abspath(os.path.dirname(__file__))
    with open(os.path.join(this_directory, 'README.rst'), 'r') as f:
        long_description = f.read()

    setup(name='egfrdiff',
          version=get_version(this_directory),
          description='Radial reaction-diffusion simulator of EGFR-proximal '
                      'SFK/GRB2/GAB1/SHP2 signaling',
          long_description=long_description,
          long_description_content_type='text/x-rst',
          packages=['egfrdiff', 'egfrdiff.simulator', 'egfrdiff.testing',
                    'egfrdiff.tests'],
          python_requires='>=3.7',
          install_requires=['numpy', 'scipy>=1.6', 'sympy>=1.6'],
          extras_require={'pandas': ['pandas'],
                          'test': ['pytest', 'pandas']},
          keywords=['systems', 'biology', 'reaction-diffusion', 'EGFR'],
          classifiers=[
            'Development Status :: 4 - Beta',
            'Environment :: Console',
            'Intended Audience :: Science/Research',
            'Operating System :: OS Independent',
            'Programming Language :: Python :: 3',
            'Topic :: Scientific/Engineering :: Bio-Informatics',
            'Topic :: Scientific/Engineering :: Mathematics',
            ],
          )


if __name__ == '__main__':
    main()
