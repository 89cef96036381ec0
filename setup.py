from setuptools import find_packages, setup

package_name = "icp_laser"

setup(
    name=package_name,
    version="0.1.0",
    packages=find_packages(exclude=["test"]),
    data_files=[
        ("share/ament_index/resource_index/packages", ["resource/" + package_name]),
        ("share/" + package_name, ["package.xml"]),
        (
            "share/" + package_name + "/launch",
            [
                "launch/icp_laser.launch.py",
            ],
        ),
        (
            "share/" + package_name + "/config",
            [
                "config/icp_laser.yaml",
            ],
        ),
    ],
    install_requires=["setuptools", "numpy", "scipy", "pyyaml", "pydantic>=2"],
    extras_require={"test": ["pytest"]},
    zip_safe=True,
    maintainer="you",
    maintainer_email="you@example.com",
    description="Laser scan to occupancy map ICP pose correction (ROS 2 Jazzy)",
    license="Apache-2.0",
    tests_require=["pytest"],
    entry_points={
        "console_scripts": [
            "icp_laser_node = icp_laser.ros.icp_laser_node:main",
        ],
    },
)
