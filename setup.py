from setuptools import setup
from pathlib import Path

this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text()

setup(name='machkit',
      version='1.0.0',
      description='Static Mach-O / universal binary decoder.',
      long_description=long_description,
      long_description_content_type='text/markdown',
      python_requires='>=3.8',
      install_requires=['Pygments'],
      extras_require={
            'test': ['pytest']
      },
      packages=['libkit', 'machkit_macho', 'machkit'],
      package_dir={
            'libkit': 'src/libkit',
            'machkit_macho': 'src/machkit_macho',
            'machkit': 'src/machkit'
      },
      classifiers=[
            'Programming Language :: Python :: 3',
            'License :: OSI Approved :: MIT License',
            'Operating System :: OS Independent'
      ],
      entry_points={
            'console_scripts': ['machkit=machkit.machkit_script:main']
      }
      )
