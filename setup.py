from setuptools import setup, find_packages
from glob import glob

package_name = 'guidance_console'

setup(
    name=package_name,
    version='0.1.0',
    packages=find_packages(exclude=['test']),
    package_data={
        package_name: ['console/*.yaml'],
    },
    data_files=[
        ('share/ament_index/resource_index/packages',
            ['resource/' + package_name]),
        ('share/' + package_name, ['package.xml']),
        ('share/' + package_name + '/launch', glob('launch/*.launch.py')),
        ('share/' + package_name + '/param', glob('param/*.yaml')),
    ],
    install_requires=['setuptools', 'PyYAML'],
    extras_require={
        'test': ['pytest'],
    },
    zip_safe=True,
    maintainer='user',
    maintainer_email='user@todo.todo',
    description='Headless guidance engagement console for the vehicle automation stack',
    license='Apache-2.0',
    tests_require=['pytest'],
    entry_points={
        'console_scripts': [
            'guidance_console = guidance_console.guidance_console_node:main',
        ],
    },
)
