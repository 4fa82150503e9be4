"""Function and event definitions of the contracts the bridge talks to."""

from chain.abi import ContractEvent, ContractFunction

# ERC20 (also the secondary chain's native coin contract)
ERC20_APPROVE = ContractFunction("approve", ("address", "uint256"), ("bool",))
ERC20_BALANCE_OF = ContractFunction("balanceOf", ("address",), ("uint256",))

# Primary-chain gateway
PRIMARY_DEPOSIT_ERC20 = ContractFunction("depositERC20", ("uint256", "address"))
PRIMARY_WITHDRAW_ETH = ContractFunction("withdrawETH", ("uint256", "bytes"))
PRIMARY_WITHDRAW_ERC20 = ContractFunction("withdrawERC20", ("uint256", "bytes", "address"))
PRIMARY_NONCES = ContractFunction("nonces", ("address",), ("uint256",))

ETH_RECEIVED = ContractEvent(
    "ETHReceived",
    (("from", "address", False), ("amount", "uint256", False)),
)
ERC20_RECEIVED = ContractEvent(
    "ERC20Received",
    (
        ("from", "address", False),
        ("amount", "uint256", False),
        ("contractAddress", "address", False),
    ),
)
TOKEN_WITHDRAWN = ContractEvent(
    "TokenWithdrawn",
    (
        ("owner", "address", True),
        ("kind", "uint8", False),
        ("contractAddress", "address", False),
        ("value", "uint256", False),
    ),
)

# Secondary-chain gateway
SECONDARY_WITHDRAW_ETH = ContractFunction("withdrawETH", ("uint256", "address"))
SECONDARY_WITHDRAW_ERC20 = ContractFunction("withdrawERC20", ("uint256", "address"))
SECONDARY_NONCES = ContractFunction("nonces", ("address",), ("uint256",))
WITHDRAWAL_RECEIPT = ContractFunction(
    "withdrawalReceipt",
    ("address",),
    ("address", "uint8", "address", "uint256", "uint256", "bytes"),
)
ADD_CONTRACT_MAPPING = ContractFunction(
    "addContractMapping", ("address", "address", "bytes", "bytes32")
)
GET_CONTRACT_MAPPING = ContractFunction("getContractMapping", ("address",), ("address",))

TOKEN_WITHDRAWAL_SIGNED = ContractEvent(
    "TokenWithdrawalSigned",
    (
        ("tokenOwner", "address", True),
        ("tokenContract", "address", True),
        ("tokenKind", "uint8", False),
        ("value", "uint256", False),
        ("sig", "bytes", False),
    ),
)

# Secondary-chain address mapper
HAS_MAPPING = ContractFunction("hasMapping", ("address",), ("bool",))
GET_MAPPING = ContractFunction("getMapping", ("address",), ("address",))
ADD_IDENTITY_MAPPING = ContractFunction("addIdentityMapping", ("address", "address", "bytes"))
