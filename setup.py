from setuptools import setup, find_packages

with open('requirements.txt', encoding='utf-8') as requirements_file:
    all_pkgs = requirements_file.readlines()

requirements = [pkg.strip() for pkg in all_pkgs if pkg.strip() and "#" not in pkg]
test_requirements = ['pytest>=7.0']

setup(
    name='singa-super',
    author='SingaSuper Team',
    description='Task execution simulator for the SingaSuper super-app mockup: multi-step ride, food, mart and '
                'health tasks advanced by a periodic tick, with free-text requests structured by a language model.',
    python_requires='>=3.10',
    classifiers=[
        'Development Status :: 2 - Pre-Alpha',
        'Intended Audience :: Developers',
        'Natural Language :: English',
        'Programming Language :: Python :: 3.10',
    ],
    install_requires=requirements,
    extras_require={
        'test': test_requirements,
    },
    include_package_data=True,
    keywords='singa_super',
    packages=find_packages(include=['singa_super', 'singa_super.*']),
    tests_require=test_requirements,
    version='0.0.1',
    zip_safe=False,
)
