"""Minimal contract ABIs (only the functions the toolkit calls)."""
import json

COUNTER_ABI = json.loads('''[
    {"inputs":[],"name":"count","outputs":[{"internalType":"uint256","name":"","type":"uint256"}],
     "stateMutability":"view","type":"function"},
    {"inputs":[],"name":"increment","outputs":[],"stateMutability":"nonpayable","type":"function"}
]''')

ERC20_ABI = json.loads('''[
    {"inputs":[{"name":"account","type":"address"}],"name":"balanceOf",
     "outputs":[{"name":"balance","type":"uint256"}],"stateMutability":"view","type":"function"},
    {"inputs":[{"name":"to","type":"address"},{"name":"amount","type":"uint256"}],"name":"transfer",
     "outputs":[{"name":"success","type":"bool"}],"stateMutability":"nonpayable","type":"function"},
    {"inputs":[{"name":"spender","type":"address"},{"name":"amount","type":"uint256"}],"name":"approve",
     "outputs":[{"name":"success","type":"bool"}],"stateMutability":"nonpayable","type":"function"},
    {"inputs":[],"name":"decimals","outputs":[{"name":"","type":"uint8"}],
     "stateMutability":"view","type":"function"},
    {"inputs":[],"name":"symbol","outputs":[{"name":"","type":"string"}],
     "stateMutability":"view","type":"function"}
]''')

SAFE_ABI = json.loads('''[
    {"inputs":[
        {"name":"_owners","type":"address[]"},{"name":"_threshold","type":"uint256"},
        {"name":"to","type":"address"},{"name":"data","type":"bytes"},
        {"name":"fallbackHandler","type":"address"},{"name":"paymentToken","type":"address"},
        {"name":"payment","type":"uint256"},{"name":"paymentReceiver","type":"address"}],
     "name":"setup","outputs":[],"stateMutability":"nonpayable","type":"function"},
    {"inputs":[],"name":"getOwners","outputs":[{"name":"","type":"address[]"}],
     "stateMutability":"view","type":"function"},
    {"inputs":[],"name":"getThreshold","outputs":[{"name":"","type":"uint256"}],
     "stateMutability":"view","type":"function"},
    {"inputs":[{"name":"start","type":"address"},{"name":"pageSize","type":"uint256"}],
     "name":"getModulesPaginated",
     "outputs":[{"name":"array","type":"address[]"},{"name":"next","type":"address"}],
     "stateMutability":"view","type":"function"},
    {"inputs":[{"name":"module","type":"address"}],"name":"isModuleEnabled",
     "outputs":[{"name":"","type":"bool"}],"stateMutability":"view","type":"function"},
    {"inputs":[],"name":"nonce","outputs":[{"name":"","type":"uint256"}],
     "stateMutability":"view","type":"function"},
    {"inputs":[],"name":"VERSION","outputs":[{"name":"","type":"string"}],
     "stateMutability":"view","type":"function"}
]''')

SAFE_PROXY_FACTORY_ABI = json.loads('''[
    {"inputs":[{"name":"_singleton","type":"address"},{"name":"initializer","type":"bytes"},
               {"name":"saltNonce","type":"uint256"}],
     "name":"createProxyWithNonce","outputs":[{"name":"proxy","type":"address"}],
     "stateMutability":"nonpayable","type":"function"},
    {"inputs":[],"name":"proxyCreationCode","outputs":[{"name":"","type":"bytes"}],
     "stateMutability":"pure","type":"function"},
    {"anonymous":false,"inputs":[
        {"indexed":true,"name":"proxy","type":"address"},
        {"indexed":false,"name":"singleton","type":"address"}],
     "name":"ProxyCreation","type":"event"}
]''')

SAFE_4337_MODULE_ABI = json.loads('''[
    {"inputs":[],"name":"SUPPORTED_ENTRYPOINT","outputs":[{"name":"","type":"address"}],
     "stateMutability":"view","type":"function"},
    {"inputs":[{"name":"to","type":"address"},{"name":"value","type":"uint256"},
               {"name":"data","type":"bytes"},{"name":"operation","type":"uint8"}],
     "name":"executeUserOp","outputs":[],"stateMutability":"nonpayable","type":"function"}
]''')

ENTRYPOINT_ABI = json.loads('''[
    {"inputs":[{"name":"sender","type":"address"},{"name":"key","type":"uint192"}],
     "name":"getNonce","outputs":[{"name":"nonce","type":"uint256"}],
     "stateMutability":"view","type":"function"},
    {"inputs":[{"name":"account","type":"address"}],"name":"balanceOf",
     "outputs":[{"name":"","type":"uint256"}],"stateMutability":"view","type":"function"},
    {"inputs":[{"name":"account","type":"address"}],"name":"depositTo",
     "outputs":[],"stateMutability":"payable","type":"function"}
]''')
