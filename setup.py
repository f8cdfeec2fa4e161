from setuptools import setup

setup(name='milkit',
      version="1.0",
      description=(
          """
          Multiple-instance learning on bags of rows: a bag data model,
          classifiers and a cross-validation harness
          """
      ),
      packages=['milkit'],
      platforms=['unix'],
      scripts=[],
      install_requires=[
          'numpy',
          'scipy',
          'scikit-learn',
      ],
      extras_require={
          'test': ['pytest'],
      },
      provides=['milkit'])
