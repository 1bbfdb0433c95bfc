from setuptools import setup, find_namespace_packages

def read_requirements(path='requirements.txt'):
    with open(path) as req:
        content = req.read()
        requirements = content.split('\n')
    # Filter out comments and empty lines
    return [req for req in requirements if req and not req.startswith('#')]

setup(
    name='jfs_order_payments',
    version='0.1.0',
    packages=find_namespace_packages(
        include=["api*", "models*", "services*", "providers*", "activities*", "workflows*", "utils*"]
    ),
    py_modules=['worker'],
    include_package_data=True,
    install_requires=read_requirements(),
    extras_require={
        'test': ['pytest>=8.0', 'pytest-asyncio>=0.23'],
    },
    description='Order placement, stock reservation and payment reconciliation service built on FastAPI and Temporal',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
        "Framework :: FastAPI",
    ],
    python_requires='>=3.9',
)
