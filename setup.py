from setuptools import setup

setup(
    name='pixelmorph',
    version='1.0.0',
    description='Draw particles that morph into a target image',
    py_modules=['targets', 'motion', 'assign', 'morph', 'main'],
    python_requires='>=3.10',
    install_requires=['pygame>=2.1', 'numpy', 'colornames'],
    extras_require={'test': ['pytest']},
    entry_points={'console_scripts': ['pixelmorph=main:main']},
    zip_safe=False,
)
